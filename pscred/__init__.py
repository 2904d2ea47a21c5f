# The pscred version
VERSION = '0.1.0'


__all__ = ["accumulator", "aggregate", "api", "bp", "cli", "errors", "keys",
           "pack", "request", "scheme", "structs", "utils"]

def run_tests():
    # These are only needed in case we test
    import pytest
    import os.path
    import glob

    # List all pscred files in the directory
    pscred_dir = os.path.dirname(os.path.realpath(__file__))
    pyfiles = glob.glob(os.path.join(pscred_dir, '*.py'))

    # Run the test suite
    print("Directory: %s" % pyfiles)
    res = pytest.main(["-v", "-x", "--doctest-modules"] + pyfiles)
    print("Result: %s" % res)

    # Return exit result
    return res
