from setuptools import setup, find_packages

setup(
    name="customdeb",
    version="0.1.0",
    description="Aplica modificações declarativas a pacotes .deb existentes.",
    author="Seu Nome",
    license="GPL-3.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "rich>=13.0.0",
        "python-debian>=0.1.49",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "customdeb=customdeb.modules.cli:main",
        ],
    },
)
