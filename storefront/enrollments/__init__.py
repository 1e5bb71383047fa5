"""
Inscriptions aux cours: parcours Razorpay (commande + signature) et variante Stripe Checkout.
"""
