"""Element and attribute names of the taxonomy document format.

::

    <?xml version='1.0' encoding='UTF-8'?>
    <root>
      <vocabulary name="colors">
        <node identifier="..." nodeName="colors" kind="vocabulary">
          <properties>
            <property name="title">Colors</property>
          </properties>
          <node identifier="..." nodeName="red" kind="term"/>
        </node>
      </vocabulary>
    </root>

Whitespace between elements is cosmetic and ignored on read.
"""

TAG_ROOT = "root"
TAG_VOCABULARY = "vocabulary"
TAG_NODE = "node"
TAG_PROPERTIES = "properties"
TAG_PROPERTY = "property"

ATTR_NAME = "name"
ATTR_IDENTIFIER = "identifier"
ATTR_NODE_NAME = "nodeName"
ATTR_KIND = "kind"

INDENT = "  "
