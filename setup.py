from setuptools import find_packages, setup

setup(
    name="regtree",
    version="0.1.0",
    description="Presorted, concurrently built regression trees for boosting pipelines",
    packages=find_packages(exclude=("tests", "tests.*", "examples")),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "scikit-learn",
    ],
    extras_require={
        "test": ["pytest", "pandas"],
    },
)
