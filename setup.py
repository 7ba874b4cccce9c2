from setuptools import setup


setup(
    name="order-lens",
    version="0.1.0",
    description="Local order-spreadsheet ingestion, normalisation and statistics",
    packages=["order_lens"],
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "order-lens=order_lens.cli:main",
        ]
    },
)
