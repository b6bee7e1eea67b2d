from setuptools import find_packages, setup

package_name = "map_localizer"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test", "test.*"]),
    install_requires=["numpy", "scipy", "pydantic>=2", "pyyaml"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.9",
    zip_safe=True,
    maintainer="Will Haber",
    maintainer_email="whab13@mit.edu",
    description="Scan-to-map ICP localization against a prior point-cloud map",
    license="Apache-2.0",
    entry_points={
        "console_scripts": [
            # Offline replay of map/fix/scans through the localizer service
            "map_localizer_replay = map_localizer.localizer_main:main",
        ],
    },
)
