"""Command line front end for lx-suite."""
