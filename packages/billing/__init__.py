"""
Billing package - orchestrates subscriptions, tier changes and payments.

This package integrates with:
- Metronome: Customers, contracts, invoices and the credit ledger
- Stripe: Payment methods and payment execution

Provider state is mirrored locally and kept current through webhooks.
"""
