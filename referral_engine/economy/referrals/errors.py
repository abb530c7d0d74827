class ReferralError(Exception):
    pass


class CodeSpaceExhaustedError(ReferralError):
    pass


class ReferralUserNotFoundError(ReferralError):
    pass
