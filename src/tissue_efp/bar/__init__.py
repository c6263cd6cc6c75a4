"""
HTTP access to the Bio-Analytic Resource (BAR) eFP services.

`client` owns session setup and JSON retrieval; `endpoints` builds the
request URLs and the sample-name escaping shared with the catalog.
"""
