"""dutchswap command line interface"""
