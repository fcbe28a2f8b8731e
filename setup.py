#!/usr/bin/env python

from setuptools import find_packages, setup

setup(
    name="molgnn",
    version="0.1.0",
    description="Molecular graph featurization, GNN embedding inference and similarity scoring",
    author="Saketh",
    author_email="",
    url="https://github.com/saketh/molgnn",
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "torch-geometric",
        "rdkit",
        "hydra-core",
        "omegaconf",
        "requests",
    ],
    extras_require={"test": ["pytest"]},
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["molgnn", "molgnn.*"]),
)
