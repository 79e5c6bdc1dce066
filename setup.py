from setuptools import setup, find_packages

setup(
    name="cashflow_recon",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas",
        "numpy",
        "openpyxl",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cashflow-recon=cashflow_recon.cli:main",
        ],
    },
    description="Unified cash-flow ledger and counterparty reconciliation for clinic journal workbooks",
    python_requires=">=3.8",
)
