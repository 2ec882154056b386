from setuptools import setup, find_packages

setup(
    name='hactl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'hactl': ['templates/*.j2'],
    },
    install_requires=[
        'typer',
        'jinja2',
        'pydantic>=2',
        'pyyaml',
        'paramiko',
        'python-dotenv',
        'requests'
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'hactl=hactl.cli:app'
        ]
    },
    author='Your Name',
    description='Declarative provisioning of heartbeat/pacemaker high-availability nodes',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
        'Topic :: System :: Clustering',
    ],
    python_requires='>=3.8',
)
