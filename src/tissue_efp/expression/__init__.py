"""
Expression pipeline components: sample catalog resolution, batched expression
fetching, per-region aggregation and gradient coloring.
"""
