"""Entry point wrapper for ``python -m chordlab``.

Execution is forwarded to :func:`chordlab.main` so ``python -m chordlab`` and
the installed ``chordlab`` console script behave identically.

Example
-------
::

    python -m chordlab --key A --mode minor --chords 4 --rhythm conjunct
"""

from . import main

if __name__ == "__main__":
    main()
