class BoxException(Exception):
    pass


class BoxNotFoundError(BoxException):
    pass

class SadaqahNotFoundError(BoxException):
    pass

class InvalidAmountError(BoxException):
    pass
