"""
Setup script for the MPG-Bayes package
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_file(filename):
    filepath = os.path.join(os.path.dirname(__file__), filename)
    if not os.path.exists(filepath):
        return ''
    with open(filepath, encoding='utf-8') as f:
        return f.read()

setup(
    name='mpg-bayes',
    version='0.1.0',
    description='Bayesian linear and Gaussian-process regression of fuel economy via MCMC',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    license='MIT',

    # Package discovery from src/
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires='>=3.10',

    install_requires=[
        'numpy>=1.24.0',
        'pandas>=1.5.0',
        'matplotlib>=3.6.0',
        'seaborn>=0.12.0',
        'scikit-learn>=1.2.0',
        'pymc>=5.10.0',
        'pytensor>=2.18.0',
        'arviz>=0.17.0,<1.0',
        'h5netcdf>=1.1.0',  # netCDF backend for saved fits
    ],

    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
    },

    entry_points={
        'console_scripts': [
            'mpg-bayes=mpg_bayes.__main__:main',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Education',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],

    keywords='bayesian-inference mcmc gaussian-process linear-regression pymc auto-mpg',
)
