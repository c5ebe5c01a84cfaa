"""
Integration modules for the payment gateway service

Contains adapters and clients for external payment providers
(Stripe, Paystack).
"""
