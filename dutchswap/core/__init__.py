"""Auction registry core: auctions, ledgers, clock, config and errors"""
