"""
Commandes réglées: historique utilisateur et exécution (expédition, livraison).
"""
