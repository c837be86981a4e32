from setuptools import setup, find_packages

setup(
    name="crash-momentum-signals",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "exceptions", "calculate_signals"],
    install_requires=[
        "numpy",
        "pandas>=2.1",
        "scipy",
        "duckdb",
        "tqdm",
        "matplotlib",
        "seaborn",
    ],
    extras_require={
        "test": [
            "pytest",
            "statsmodels",
        ],
    },
    python_requires=">=3.8",
)
