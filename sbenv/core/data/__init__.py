"""
Static data for sbenv — constants only, no logic.

Usage::

    from sbenv.core.data import constants

    low, high = constants.PORT_RANGE_START, constants.PORT_RANGE_END
"""
