""" Multi-process line sort: fan input out to a pool of
sorting workers, then k-way merge their outputs.

Kept free of imports so that `python -m pipesort.worker`
starts without loading the coordinator.
"""
