# -*- coding: utf-8 -*-
"""
Setup file for PyWFLO
"""
from setuptools import setup, find_packages


def read_md(f):
    with open(f, 'r') as fid:
        return fid.read()


setup(name='py_wflo',
      version='0.1.0',
      description='PyWFLO, wind farm layout optimization',
      long_description=read_md('README.md'),
      long_description_content_type='text/markdown',
      license='MIT',
      packages=find_packages(include=['py_wflo', 'py_wflo.*']),
      package_data={
          'py_wflo': ['examples/data/*.yaml'],
      },
      python_requires='>=3.8',
      install_requires=[
          'numpy',  # for numerical calculations
          'scipy',  # root finding, regression and interpolation
          'xarray',  # for suitability and wake maps
          'shapely>=2.0',  # site boundaries and constraint zones
          'pyyaml',  # for reading yaml files
          'tqdm',  # progressbar
      ],
      extras_require={
          'test': [
              'pytest',  # for testing
              'pytest-cov',  # for calculating coverage
          ]},
      zip_safe=True)
