import os
from setuptools import setup

README = open(os.path.join(os.path.dirname(__file__), 'README.rst')).read()

# allow setup.py to be run from any path
os.chdir(os.path.normpath(os.path.join(os.path.abspath(__file__), os.pardir)))

exec(open('multivcs/version.py').read())

setup(
    name='multivcs',
    version=__version__,
    packages=['multivcs'],
    include_package_data=True,
    license='BSD',
    description='A uniform client for git, Mercurial, Subversion and Bazaar.',
    long_description=README,
    install_requires=[
        'requests',
    ],
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.5',

    classifiers=[
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: POSIX',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Version Control',
    ],
)

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
