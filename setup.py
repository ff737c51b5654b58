# setup.py
from setuptools import setup, find_packages

setup(
    name="kvadmin",
    version="0.1.0",
    description="Scan/apply pipeline and perf-counter aggregation for a partitioned key-value cluster",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "rocksdict",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
