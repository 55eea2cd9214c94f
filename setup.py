from setuptools import setup, find_packages

setup(
    name="hoops-archive",
    version="0.1.0",
    description="Basketball statistics CSV ingestion and consolidation into an embedded DuckDB store",
    author="Ben Rosen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "duckdb>=0.10.0",
        "pandas>=1.5.3",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "hoops-archive=hoops_archive.main:main",
        ],
    },
)
