from setuptools import setup


setup(
    name="sheet-chat",
    version="0.1.0",
    description="Local chat-style spreadsheet upload, search, and CSV export for Excel and CSV files",
    packages=["sheet_chat"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "sheet-chat=sheet_chat.cli:main",
        ]
    },
)
