import os.path
import os
import re

from paver.tasks import task
from paver.easy import sh


def tell(x):
    print()
    print(("-"*10)+ str(x) + ("-"*10))
    print()

@task
def build(quiet=True):
    """ Builds the pscred distribution, ready to be uploaded to pypi. """
    tell("Build dist")
    sh('python setup.py sdist', capture=quiet)

@task
def test(quiet=False):
    """ Run the pscred test suite, including doctests and coverage. """
    tell("Run the tests")
    sh('py.test --doctest-modules --cov=pscred pscred/*.py', capture=quiet)

@task
def version(quiet=False):
    """ Print the version of pscred. """
    lib = open(os.path.join("pscred", "__init__.py")).read()
    v = re.findall("VERSION.*=.*['\"](.*)['\"]", lib)[0]
    tell("pscred version %s" % v)

@task
def lint(quiet=False):
    """ Run the python linter on pscred. """
    tell("Run pylint on the library")
    sh('pylint pscred', capture=quiet)

@task
def wc(quiet=False):
    """ Count the pscred library and example code lines. """
    tell("Counting code lines")

    print("\nLibrary code:")
    sh('wc -l pscred/*.py', capture=quiet)

    print("\nExample code:")
    sh('wc -l examples/*.py', capture=quiet)

    print("\nAdministration code:")
    sh('wc -l pavement.py setup.py', capture=quiet)
