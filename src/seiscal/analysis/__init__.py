"""Signal analysis utilities (filtering, FFT, correlation and angle math).

This package gathers pure helpers that operate on NumPy arrays of sensor
samples. Modules such as :mod:`filters`, :mod:`fft`, :mod:`features`, and
:mod:`numeric` know nothing about experiments or result types so they can be
reused by scripts, tests, or the estimators in :mod:`seiscal.experiments`.
"""
