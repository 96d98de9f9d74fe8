"""Service layer: amount formatting, valuation and fetch-cycle sessions"""
