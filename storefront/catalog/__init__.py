"""
Catalogue: oracle prix/stock en lecture seule pour le règlement.
"""
