from setuptools import setup, find_packages

setup(
    name='fepack',
    version='0.1.0',
    description='Front-end asset packager: concatenate, inline, minify and watch',
    py_modules=['fepack', 'assembler'],
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.10',
    install_requires=[
        'filetype',
        'pydantic>=2.0',
        'requests>=2.28',
        'watchdog>=3.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'fepack = fepack:main',
        ],
    },
)
