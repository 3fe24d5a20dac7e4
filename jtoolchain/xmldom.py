from lxml import etree


def localname(elem):
    # Comments and processing instructions have no string tag
    if not isinstance(elem.tag, str):
        return None
    return etree.QName(elem).localname


def qualify(tag, namespace=None):
    return "{{{0}}}{1}".format(namespace, tag) if namespace else tag


class SubElement(object):
    def __init__(self, tag='', elem=None):
        super(SubElement, self).__init__()
        self._elem = elem if elem is not None else etree.Element(tag)

    @property
    def elem(self):
        return self._elem

    @property
    def tag(self):
        return localname(self._elem)

    @property
    def namespace(self):
        return etree.QName(self._elem).namespace

    @property
    def text(self):
        return self._elem.text

    @text.setter
    def text(self, value):
        self._elem.text = value

    def __len__(self):
        return len(self._elem)

    def children(self, name=None):
        return [child for child in self._elem
                if localname(child) is not None and (name is None or localname(child) == name)]

    def find(self, name):
        children = self.children(name)
        return children[0] if children else None

    def subelement(self, name):
        """ Append a new child element in the same namespace as this element. """
        return etree.SubElement(self._elem, qualify(name, self.namespace))


class Properties(SubElement):
    """ An element whose child elements are simple name/value pairs. """

    def as_dict(self):
        return {localname(child): (child.text or "").strip() for child in self.children()}

    def get(self, key, default=None):
        child = self.find(key)
        if child is None or child.text is None:
            return default
        return child.text.strip()

    def set(self, key, value):
        child = self.find(key)
        if child is None:
            child = self.subelement(key)
        child.text = value


class Attribute(object):
    """ Maps a child element's text to a property on the decorated class. """

    def __init__(self, attribute, varname=None):
        self.attribute = attribute
        self.varname = varname if varname is not None else attribute.lower()

    def __call__(self, cls):
        attribute = self.attribute

        def child_get(self):
            child = self.find(attribute)
            if child is None or child.text is None:
                return None
            return child.text.strip()

        def child_set(self, value):
            if value is None:
                return
            child = self.find(attribute)
            if child is None:
                child = self.subelement(attribute)
            child.text = value

        setattr(cls, self.varname, property(child_get, child_set))
        return cls


class Composition(object):
    """ Adds create_ and get_ accessors for child elements of a class.

    A property listing all such children is added when a plural name
    is given.
    """

    def __init__(self, cls, name=None, plural=None):
        self.cls = cls
        self.name = name if name is not None else cls.__name__.lower()
        self.plural = plural

    def __call__(self, cls):
        comp_cls = self.cls
        name = self.name

        def create(self):
            return comp_cls(elem=self.subelement(name))

        def getall(self):
            return [comp_cls(elem=child) for child in self.children(name)]

        def getone(self):
            child = self.find(name)
            return comp_cls(elem=child) if child is not None else None

        setattr(cls, 'create_' + name, create)
        setattr(cls, 'get_' + name, getone)
        if self.plural:
            setattr(cls, self.plural, property(getall))
        return cls
