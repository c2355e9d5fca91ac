#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='ldifdiff',
    version='1.0.0',
    description='Compute the LDIF change records between two directory snapshots',
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['ldap', 'ldif', 'diff'],
    author="Caltech IMSS ADS",
    author_email="imss-ads-staff@caltech.edu",
    packages=find_packages(exclude=['bin']),
    include_package_data=True,
    python_requires='>=3.10',
    install_requires=[
        'django',
        'ldap_filter',
        'python-ldap>=3.3',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'ldifdiff=ldifdiff.cli:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3"
    ],
)
