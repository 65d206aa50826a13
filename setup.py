#!/usr/bin/env python3

from setuptools import setup, find_packages

setup(
    name='aoty-genre-primer',
    version='0.2.0',
    description='AlbumOfTheYear.org genre charts turned into Spotify primer playlists',
    author='AOTY Genre Primer',
    packages=find_packages(include=['aoty', 'aoty.*']),
    entry_points={
        'console_scripts': [
            'aoty-primer=aoty.cli:main',
        ],
    },
    install_requires=[
        # Core dependencies
        'aiohttp>=3.8.0',
        'beautifulsoup4>=4.11.0',
        'lxml>=4.9.0',
        'requests>=2.28.0',

        # Browser automation
        'camoufox[geoip]>=0.3.0',
        'camoufox-captcha>=0.1.0',
        'playwright>=1.40.0',

        # Retry and resilience
        'tenacity>=8.0.0',

        # Spotify Web API
        'spotipy>=2.23.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Multimedia :: Sound/Audio',
    ],
    python_requires='>=3.10',
)
