# TripMeter - GPS trip distance engine
# Copyright (C) 2024 TripMeter Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

from setuptools import setup, find_packages

setup(
    name='tripmeter',
    version='1.0.0',
    description='GPS trip distance engine with stationary-drift suppression',
    author='TripMeter Contributors',
    license='AGPL-3.0',
    packages=find_packages(exclude=['test', 'test.*']),
    py_modules=['config', 'tripmeter_cli'],
    install_requires=[
        'numpy',
        'matplotlib',
        'pynmea2',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'tripmeter=tripmeter_cli:main',
        ],
    },
    python_requires='>=3.8',
)
