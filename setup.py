from setuptools import setup, find_packages

setup(
    name="censusmaps",
    version="0.1.0",
    description="Fetch U.S. Census Bureau survey percentages, normalize them across vintages, and map them as choropleths.",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["censusmaps", "censusmaps.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx",
        "pandas>=2.0",
        "numpy",
        "geopandas>=1.0",
        "shapely>=2.0",
        "pyproj",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
