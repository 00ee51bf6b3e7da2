from setuptools import setup

setup(
    name='atmfjstc-zip-scanner',
    version='1.0.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=['atmfjstc.lib.zip_scanner'],

    install_requires=[
        'atmfjstc-binary-utils>=1.2, <2',
        'atmfjstc-archive-forensics>=0.4.1, <1',
        'atmfjstc-error-utils>=1.1, <2',
        'atmfjstc-cli-utils>=1.8, <2',
    ],

    extras_require={
        'test': [
            'pytest',
        ],
    },

    entry_points={
        'console_scripts': [
            'zipscan=atmfjstc.lib.zip_scanner.cli:main',
        ],
    },

    zip_safe=True,

    description="Sequential (streaming) reader for ZIP archives that does not need the central directory",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: System :: Archiving",
        "Typing :: Typed",
    ],
    python_requires='>=3.8',
)
