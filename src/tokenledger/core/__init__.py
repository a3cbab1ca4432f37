"""
tokenledger core: collaborators, configuration, logging and errors.
"""
