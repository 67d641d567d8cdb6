# setup.py
from setuptools import setup, find_packages

setup(
    name="tangl",
    version="0.1.0",
    description="Feature and product management for software product lines on top of git",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.8",
    install_requires=[
        "networkx",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'tangl=tangl.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
