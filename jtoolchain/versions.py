import re


def _tokens(verstr):
    tokens = []
    for item in re.findall(r"[0-9]+|[a-zA-Z]+", verstr):
        tokens.append(int(item) if item.isdigit() else item.lower())
    # 17 and 17.0.0 are the same version
    while tokens and tokens[-1] == 0:
        tokens.pop()
    return tokens


def _compare_token(a, b):
    if type(a) is type(b):
        return (a > b) - (a < b)
    # Qualifiers (ea, beta, ...) sort before any release number
    return -1 if type(a) is str else 1


class version(object):
    def __init__(self, verstr):
        if type(verstr) is not str or not verstr.strip():
            raise ValueError(verstr)
        self.verstr = verstr.strip()
        self.tokens = _tokens(self.verstr)

    def __str__(self):
        return self.verstr

    def __repr__(self):
        return str(self)

    def compare(self, other):
        length = max(len(self.tokens), len(other.tokens))
        for i in range(length):
            a = self.tokens[i] if i < len(self.tokens) else 0
            b = other.tokens[i] if i < len(other.tokens) else 0
            result = _compare_token(a, b)
            if result != 0:
                return result
        return 0

    def __eq__(self, other):
        return self.compare(other) == 0

    def __lt__(self, other):
        return self.compare(other) < 0

    def __le__(self, other):
        return self.compare(other) <= 0

    def __gt__(self, other):
        return self.compare(other) > 0

    def __ge__(self, other):
        return self.compare(other) >= 0


class restriction(object):
    def __init__(self, lower, lower_inclusive, upper, upper_inclusive):
        self.lower = lower
        self.lower_inclusive = lower_inclusive
        self.upper = upper
        self.upper_inclusive = upper_inclusive

    def contains(self, ver):
        if self.lower is not None:
            if ver < self.lower or (ver == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if ver > self.upper or (ver == self.upper and not self.upper_inclusive):
                return False
        return True

    def __str__(self):
        return "{}{},{}{}".format(
            "[" if self.lower_inclusive else "(",
            self.lower or "",
            self.upper or "",
            "]" if self.upper_inclusive else ")")


class version_range(object):
    """ A version specification as used in toolchain requirements.

    A plain version such as ``17`` only matches the same version,
    ignoring trailing zeroes. Bracketed ranges are also accepted:

      - ``[1.8,11)`` - from 1.8 inclusive up to, but not including, 11
      - ``[17,)`` - 17 or later
      - ``(,1.8]`` - up to and including 1.8
      - ``[11]`` - exactly 11
      - ``[1.8,9),[11,)`` - either of the two ranges

    Raises ValueError if the specification is malformed.
    """

    def __init__(self, spec):
        if type(spec) is not str or not spec.strip():
            raise ValueError(spec)
        self.spec = spec.strip()
        self.recommended = None
        self.restrictions = []

        if self.spec[0] not in "[(":
            self.recommended = version(self.spec)
            return

        remaining = self.spec
        while remaining:
            match = re.match(r"^\s*([\[(])([^\])]*)([\])])\s*(,|$)", remaining)
            if not match:
                raise ValueError(spec)
            self.restrictions.append(self._parse_restriction(*match.group(1, 2, 3), spec=spec))
            remaining = remaining[match.end():]
            if match.group(4) == "," and not remaining.strip():
                raise ValueError(spec)

    @staticmethod
    def _parse_restriction(opening, body, closing, spec):
        lower_inclusive = opening == "["
        upper_inclusive = closing == "]"
        if "," not in body:
            if not lower_inclusive or not upper_inclusive or not body.strip():
                raise ValueError(spec)
            exact = version(body)
            return restriction(exact, True, exact, True)

        lower, upper = [part.strip() for part in body.split(",", 1)]
        lower = version(lower) if lower else None
        upper = version(upper) if upper else None
        if lower is not None and upper is not None and upper < lower:
            raise ValueError(spec)
        return restriction(lower, lower_inclusive, upper, upper_inclusive)

    def has_restrictions(self):
        return len(self.restrictions) > 0

    def contains(self, ver):
        if type(ver) is str:
            ver = version(ver)
        if self.has_restrictions():
            return any(r.contains(ver) for r in self.restrictions)
        return self.recommended == ver

    def __str__(self):
        return self.spec
