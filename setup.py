"""
Packaging for the driver station. Install with `pip install -e .[test]`, then run the
station with `python -m driverstation --team <number>` and the tests with `pytest`.
"""

from setuptools import setup

setup(
    name='driverstation-py',
    version='0.1.0',
    description='Client-side driver station: controls a robot and reads its telemetry over UDP.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['driverstation', 'driverstation.config', 'driverstation.protocol', 'driverstation.support',
              'driverstation.transport'],
    package_data={'driverstation.config': ['*.cfg']},
    python_requires='>=3.8',
    install_requires=[
        'configobj>=5.0.6',
        'zeroconf>=0.133.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'PyHamcrest>=2.0',
            'timeout-decorator',
        ],
    },
    entry_points={
        'console_scripts': ['driverstation=driverstation.cli:main'],
    },
    zip_safe=False,
)
