"""
Ledger Modules - persistence and services per business area.

    custody    custodial cash accounts, transactions, expenses
    operating  operating-fee balances, withdrawals, exclusions, closures
    payroll    employees, advances, installation-team accounts
    contracts  read-only contract and customer-payment data
"""
