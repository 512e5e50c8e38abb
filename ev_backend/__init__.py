"""Fixture EV — Poisson fair-odds model and EV opportunity scanner for football."""
