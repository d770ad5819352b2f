"""
Structural simplifications applied to parsed SVG documents.

Every plugin takes the root element and edits the tree in place. The order of
PLUGINS matters: shapes are converted before groups collapse, and paths are
cleaned before they are merged.
"""

import re
from collections import Counter
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from lxml import etree

from msyn.svg.path_data import (
    bboxes_overlap,
    clean_path_data,
    clean_transform,
    format_number,
    parse_numbers,
    parse_path_data,
    path_bbox,
)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

EDITOR_NAMESPACES = {
    "http://creativecommons.org/ns#",
    "http://inkscape.sourceforge.net/DTD/sodipodi-0.dtd",
    "http://ns.adobe.com/AdobeIllustrator/10.0/",
    "http://ns.adobe.com/AdobeSVGViewerExtensions/3.0/",
    "http://ns.adobe.com/Extensibility/1.0/",
    "http://ns.adobe.com/Flows/1.0/",
    "http://ns.adobe.com/GenericCustomNamespace/1.0/",
    "http://ns.adobe.com/ImageReplacement/1.0/",
    "http://ns.adobe.com/SaveForWeb/1.0/",
    "http://ns.adobe.com/Variables/1.0/",
    "http://ns.adobe.com/XPath/1.0/",
    "http://purl.org/dc/elements/1.1/",
    "http://schemas.microsoft.com/visio/2003/SVGExtensions/",
    "http://sodipodi.sourceforge.net/DTD/sodipodi-0.dtd",
    "http://taptrix.com/vectorillustrator/svg_extensions",
    "http://www.bohemiancoding.com/sketch/ns",
    "http://www.figma.com/figma/ns",
    "http://www.inkscape.org/namespaces/inkscape",
    "http://www.serif.com/",
    "http://www.vector.evaxdesign.sk",
    "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
}

# presentation attributes children inherit from their ancestors
INHERITABLE_ATTRS = {
    "clip-rule",
    "color",
    "color-interpolation",
    "color-interpolation-filters",
    "color-rendering",
    "cursor",
    "direction",
    "fill",
    "fill-opacity",
    "fill-rule",
    "font",
    "font-family",
    "font-size",
    "font-size-adjust",
    "font-stretch",
    "font-style",
    "font-variant",
    "font-weight",
    "image-rendering",
    "letter-spacing",
    "marker",
    "marker-end",
    "marker-mid",
    "marker-start",
    "paint-order",
    "pointer-events",
    "shape-rendering",
    "stroke",
    "stroke-dasharray",
    "stroke-dashoffset",
    "stroke-linecap",
    "stroke-linejoin",
    "stroke-miterlimit",
    "stroke-opacity",
    "stroke-width",
    "text-anchor",
    "text-rendering",
    "visibility",
    "word-spacing",
    "writing-mode",
}

# presentation attributes that have no effect on a <g>
NON_INHERITABLE_GROUP_ATTRS = {
    "alignment-baseline",
    "baseline-shift",
    "clip",
    "dominant-baseline",
    "flood-color",
    "flood-opacity",
    "lighting-color",
    "overflow",
    "stop-color",
    "stop-opacity",
}

INHERITED_DEFAULTS = {
    "clip-rule": "nonzero",
    "fill-opacity": "1",
    "fill-rule": "nonzero",
    "stroke-dashoffset": "0",
    "stroke-linecap": "butt",
    "stroke-linejoin": "miter",
    "stroke-miterlimit": "4",
    "stroke-opacity": "1",
    "stroke-width": "1",
    "visibility": "visible",
}

ELEMENT_DEFAULTS = {
    "svg": {"x": "0", "y": "0", "preserveAspectRatio": "xMidYMid meet"},
    "rect": {"x": "0", "y": "0"},
    "use": {"x": "0", "y": "0"},
    "image": {"x": "0", "y": "0", "preserveAspectRatio": "xMidYMid meet"},
}

CONTAINER_ELEMENTS = {
    "a",
    "defs",
    "g",
    "marker",
    "mask",
    "missing-glyph",
    "pattern",
    "switch",
    "symbol",
}

SHAPE_ELEMENTS = {"circle", "ellipse", "line", "path", "polygon", "polyline", "rect"}

# elements whose hidden children are still used through references
NON_RENDERED_ELEMENTS = {"clipPath", "defs", "marker", "mask", "pattern", "symbol"}

# attributes that stop two sibling paths from being merged into one
MERGE_BLOCKING_ATTRS = {
    "clip-path",
    "fill-opacity",
    "id",
    "marker-end",
    "marker-mid",
    "marker-start",
    "mask",
    "opacity",
    "stroke-opacity",
    "style",
    "transform",
}

KEEP_EMPTY_ATTRS = {"requiredExtensions", "requiredFeatures", "systemLanguage"}

URL_REF_RE = re.compile(r"url\(\s*['\"]?#([^)'\"\s]+)")

Plugin = Callable[[etree._Element], None]


def local_name(el: etree._Element) -> str:
    return etree.QName(el).localname


def namespace(el: etree._Element) -> Optional[str]:
    return etree.QName(el).namespace


def elements(root: etree._Element) -> Iterator[etree._Element]:
    """Every element of the tree in document order, skipping comments and PIs."""
    for el in root.iter():
        if isinstance(el.tag, str):
            yield el


def element_children(el: etree._Element) -> List[etree._Element]:
    return [child for child in el if isinstance(child.tag, str)]


def has_text(el: etree._Element) -> bool:
    """True if the element holds non-whitespace text between its children."""
    if el.text and el.text.strip():
        return True
    return any(child.tail and child.tail.strip() for child in el)


def remove_node(node: etree._Element) -> None:
    """Remove a node while keeping the text that follows it."""
    parent = node.getparent()
    if parent is None:
        return
    if node.tail:
        previous = node.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + node.tail
        else:
            parent.text = (parent.text or "") + node.tail
    parent.remove(node)


def unwrap(el: etree._Element) -> None:
    """Replace an element by its children."""
    parent = el.getparent()
    if parent is None:
        return
    index = parent.index(el)
    children = list(el)
    if el.text:
        previous = el.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + el.text
        else:
            parent.text = (parent.text or "") + el.text
    tail = el.tail
    parent.remove(el)
    for offset, child in enumerate(children):
        parent.insert(index + offset, child)
    if tail:
        if children:
            children[-1].tail = (children[-1].tail or "") + tail
        else:
            previous = parent[index - 1] if index > 0 else None
            if previous is not None:
                previous.tail = (previous.tail or "") + tail
            else:
                parent.text = (parent.text or "") + tail


def has_style_or_script(root: etree._Element) -> bool:
    return any(local_name(el) in ("style", "script") for el in elements(root))


def referenced_ids(root: etree._Element) -> Set[str]:
    """Ids referenced through url(#id) or #id hrefs anywhere in the document."""
    ids = set()
    for el in elements(root):
        for key, value in el.attrib.items():
            ids.update(URL_REF_RE.findall(value))
            if etree.QName(key).localname == "href" and value.startswith("#"):
                ids.add(value[1:])
    return ids


def inherited_value(el: Optional[etree._Element], attr: str) -> Optional[str]:
    """Value of an inheritable attribute on the element or its nearest ancestor."""
    while el is not None:
        if attr in el.attrib:
            return el.get(attr)
        el = el.getparent()
    return None


def _ancestor_sets_in_style(el: etree._Element, attr: str) -> bool:
    parent = el.getparent()
    while parent is not None:
        if attr in (parent.get("style") or ""):
            return True
        parent = parent.getparent()
    return False


def remove_comments(root: etree._Element) -> None:
    for comment in list(root.iter(etree.Comment)):
        # legal comments such as licences are kept
        if not (comment.text or "").startswith("!"):
            remove_node(comment)


def remove_doctype(root: etree._Element) -> None:
    """Drop unresolved entity references left over from the document type declaration."""
    for entity in list(root.iter(etree.Entity)):
        remove_node(entity)


def remove_xml_proc_inst(root: etree._Element) -> None:
    for pi in list(root.iter(etree.ProcessingInstruction)):
        remove_node(pi)


def remove_metadata(root: etree._Element) -> None:
    for el in list(elements(root)):
        if local_name(el) == "metadata" and el is not root:
            remove_node(el)


def remove_editors_ns_data(root: etree._Element) -> None:
    for el in list(elements(root)):
        if el is not root and namespace(el) in EDITOR_NAMESPACES:
            remove_node(el)
            continue
        for key in list(el.attrib):
            if etree.QName(key).namespace in EDITOR_NAMESPACES:
                del el.attrib[key]


def cleanup_attrs(root: etree._Element) -> None:
    for el in elements(root):
        for key, value in el.attrib.items():
            cleaned = " ".join(value.split())
            if cleaned != value:
                el.set(key, cleaned)


def remove_useless_defs(root: etree._Element) -> None:
    """Drop definitions that can never be rendered or referenced."""
    check_references = not has_style_or_script(root) and not any(
        local_name(el).startswith("animate") or local_name(el) == "set" for el in elements(root)
    )
    used = referenced_ids(root) if check_references else set()

    for defs in [el for el in elements(root) if local_name(el) == "defs"]:
        for child in element_children(defs):
            if local_name(child) == "style":
                continue
            child_id = child.get("id")
            if child_id is None:
                if not any(d.get("id") for d in child.iter() if isinstance(d.tag, str)):
                    remove_node(child)
            elif check_references and child_id not in used:
                if not any(
                    d.get("id") in used for d in child.iter() if isinstance(d.tag, str)
                ):
                    remove_node(child)


def remove_unknowns_and_defaults(root: etree._Element) -> None:
    """Remove attributes that restate the value a renderer would use anyway."""
    if has_style_or_script(root):
        return
    for el in elements(root):
        name = local_name(el)
        for key, default in ELEMENT_DEFAULTS.get(name, {}).items():
            if el.get(key) == default:
                del el.attrib[key]
        if el.get("opacity") == "1":
            del el.attrib["opacity"]
        for key, default in INHERITED_DEFAULTS.items():
            value = el.get(key)
            if value is None or _ancestor_sets_in_style(el, key):
                continue
            parent_value = inherited_value(el.getparent(), key)
            if parent_value is None and value == default:
                del el.attrib[key]
            elif parent_value is not None and parent_value == value:
                del el.attrib[key]


def remove_non_inheritable_group_attrs(root: etree._Element) -> None:
    for el in elements(root):
        if local_name(el) == "g":
            for key in NON_INHERITABLE_GROUP_ATTRS & set(el.attrib):
                del el.attrib[key]


def remove_useless_stroke_and_fill(root: etree._Element) -> None:
    if has_style_or_script(root):
        return
    for el in elements(root):
        if local_name(el) not in SHAPE_ELEMENTS or el.get("style"):
            continue
        if _ancestor_sets_in_style(el, "stroke") or _ancestor_sets_in_style(el, "fill"):
            continue

        stroke = inherited_value(el, "stroke")
        width = inherited_value(el, "stroke-width")
        if stroke in (None, "none") or width == "0":
            for key in [k for k in el.attrib if k.startswith("stroke-")]:
                del el.attrib[key]
            parent_stroke = inherited_value(el.getparent(), "stroke")
            if parent_stroke not in (None, "none"):
                el.set("stroke", "none")
            elif "stroke" in el.attrib:
                del el.attrib["stroke"]

        if el.get("fill") == "none":
            for key in ("fill-opacity", "fill-rule"):
                el.attrib.pop(key, None)


def cleanup_enable_background(root: etree._Element) -> None:
    """enable-background only matters to filters reading BackgroundImage."""
    for el in elements(root):
        for key in ("in", "in2"):
            if el.get(key, "").startswith("Background"):
                return
    for el in elements(root):
        el.attrib.pop("enable-background", None)


def _inside(el: etree._Element, names: Set[str]) -> bool:
    parent = el.getparent()
    while parent is not None:
        if local_name(parent) in names:
            return True
        parent = parent.getparent()
    return False


def _is_hidden(el: etree._Element) -> bool:
    name = local_name(el)
    if el.get("display") == "none" or el.get("opacity") == "0":
        return True
    if name == "circle" and el.get("r") == "0":
        return True
    if name == "ellipse" and "0" in (el.get("rx"), el.get("ry")):
        return True
    if name in ("rect", "image", "pattern") and "0" in (el.get("width"), el.get("height")):
        return True
    if name == "path" and not (el.get("d") or "").strip():
        return True
    if name in ("polyline", "polygon") and not (el.get("points") or "").strip():
        return True
    return False


def remove_hidden_elems(root: etree._Element) -> None:
    used = referenced_ids(root)
    for el in list(elements(root)):
        if el is root or local_name(el) in NON_RENDERED_ELEMENTS:
            continue
        if el.get("id") in used or _inside(el, NON_RENDERED_ELEMENTS):
            continue
        if el.getparent() is not None and _is_hidden(el):
            remove_node(el)


def remove_empty_text(root: etree._Element) -> None:
    for el in list(elements(root)):
        name = local_name(el)
        if name in ("text", "tspan") and not element_children(el) and not has_text(el):
            remove_node(el)
        elif name == "tref" and el.get(f"{{{XLINK_NS}}}href") is None and el.get("href") is None:
            remove_node(el)


def _numbers(el: etree._Element, *keys: str) -> Optional[List[float]]:
    """Plain numeric attribute values, None if any is missing or has units."""
    values = []
    for key in keys:
        value = el.get(key, "0" if key in ("x", "y", "x1", "y1", "x2", "y2") else None)
        if value is None:
            return None
        try:
            values.append(float(value))
        except ValueError:
            return None
    return values


def _become_path(el: etree._Element, d: str, geometry: Tuple[str, ...]) -> None:
    for key in geometry:
        el.attrib.pop(key, None)
    el.tag = f"{{{namespace(el)}}}path" if namespace(el) else "path"
    el.set("d", d)


def convert_shape_to_path(root: etree._Element) -> None:
    """Rewrite rects, lines and polylines as equivalent paths."""
    fmt = format_number
    for el in list(elements(root)):
        if element_children(el):
            continue
        name = local_name(el)

        if name == "rect" and el.get("rx") is None and el.get("ry") is None:
            values = _numbers(el, "x", "y", "width", "height")
            if values is None:
                continue
            x, y, w, h = values
            if w <= 0 or h <= 0:
                continue
            d = f"M{fmt(x)} {fmt(y)}H{fmt(x + w)}V{fmt(y + h)}H{fmt(x)}z"
            _become_path(el, d, ("x", "y", "width", "height"))

        elif name == "line":
            values = _numbers(el, "x1", "y1", "x2", "y2")
            if values is None:
                continue
            x1, y1, x2, y2 = values
            d = f"M{fmt(x1)} {fmt(y1)}L{fmt(x2)} {fmt(y2)}"
            _become_path(el, d, ("x1", "y1", "x2", "y2"))

        elif name in ("polyline", "polygon"):
            points = parse_numbers(el.get("points") or "")
            if len(points) < 4:
                continue
            if len(points) % 2:
                points = points[:-1]
            coords = [f"{fmt(points[i])} {fmt(points[i + 1])}" for i in range(0, len(points), 2)]
            d = f"M{coords[0]}L{' '.join(coords[1:])}"
            if name == "polygon":
                d += "z"
            _become_path(el, d, ("points",))


def convert_ellipse_to_circle(root: etree._Element) -> None:
    for el in elements(root):
        if local_name(el) != "ellipse":
            continue
        rx, ry = el.get("rx"), el.get("ry")
        if rx is not None and rx == ry:
            del el.attrib["rx"]
            del el.attrib["ry"]
            el.tag = f"{{{namespace(el)}}}circle" if namespace(el) else "circle"
            el.set("r", rx)


def move_elems_attrs_to_group(root: etree._Element) -> None:
    """Hoist inheritable attributes shared by every child of a group."""
    if has_style_or_script(root):
        return
    for el in elements(root):
        if local_name(el) != "g" or has_text(el):
            continue
        children = element_children(el)
        if len(children) < 2 or len(children) != len(el):
            continue
        common: Dict[str, str] = dict(children[0].attrib)
        for child in children[1:]:
            common = {k: v for k, v in common.items() if child.get(k) == v}
        for key, value in common.items():
            if key not in INHERITABLE_ATTRS:
                continue
            el.set(key, value)
            for child in children:
                del child.attrib[key]


def move_group_attrs_to_elems(root: etree._Element) -> None:
    """Push a group transform down onto path-like children."""
    for el in elements(root):
        if local_name(el) != "g" or "transform" not in el.attrib:
            continue
        if any(key in el.attrib for key in ("clip-path", "mask", "filter")):
            continue
        children = element_children(el)
        if not children or len(children) != len(el) or has_text(el):
            continue
        if not all(local_name(child) in ("path", "g", "text") for child in children):
            continue
        transform = el.get("transform")
        for child in children:
            own = child.get("transform")
            child.set("transform", f"{transform} {own}" if own else transform)
        del el.attrib["transform"]


def collapse_groups(root: etree._Element) -> None:
    """Unwrap groups that add nothing, moving their attributes to a single child."""
    for el in reversed(list(elements(root))):
        if el is root or local_name(el) != "g" or el.getparent() is None:
            continue
        if not el.attrib:
            if element_children(el) and not has_text(el):
                unwrap(el)
            continue

        children = element_children(el)
        if len(children) != 1 or len(el) != 1 or has_text(el):
            continue
        child = children[0]
        if local_name(child).startswith("animate") or local_name(child) == "set":
            continue
        if any(k not in INHERITABLE_ATTRS and k != "transform" for k in el.attrib):
            continue
        if "transform" in el.attrib and any(
            k in child.attrib for k in ("clip-path", "mask", "filter")
        ):
            continue

        for key, value in el.attrib.items():
            if key == "transform":
                own = child.get("transform")
                child.set("transform", f"{value} {own}" if own else value)
            elif key not in child.attrib:
                child.set(key, value)
        unwrap(el)


def convert_path_data(root: etree._Element) -> None:
    for el in elements(root):
        if local_name(el) == "path" and el.get("d"):
            el.set("d", clean_path_data(el.get("d")))


def convert_transform(root: etree._Element) -> None:
    for el in elements(root):
        for key in ("transform", "gradientTransform", "patternTransform"):
            value = el.get(key)
            if value is None:
                continue
            cleaned = clean_transform(value)
            if cleaned:
                el.set(key, cleaned)
            else:
                del el.attrib[key]


def remove_empty_attrs(root: etree._Element) -> None:
    for el in elements(root):
        for key, value in list(el.attrib.items()):
            if not value.strip() and etree.QName(key).localname not in KEEP_EMPTY_ATTRS:
                del el.attrib[key]


def remove_empty_containers(root: etree._Element) -> None:
    for el in reversed(list(elements(root))):
        if el is root or el.getparent() is None:
            continue
        name = local_name(el)
        if name not in CONTAINER_ELEMENTS or len(el) or has_text(el):
            continue
        if name == "pattern" and any(etree.QName(k).localname == "href" for k in el.attrib):
            continue
        if name == "mask" and el.get("id"):
            continue
        if name == "g" and el.get("filter"):
            continue
        remove_node(el)


def _mergeable(path: etree._Element) -> bool:
    if local_name(path) != "path" or len(path) or not path.get("d"):
        return False
    if MERGE_BLOCKING_ATTRS & set(path.attrib):
        return False
    return path.get("fill-rule") != "evenodd" and path.get("clip-rule") != "evenodd"


def _same_attrs(a: etree._Element, b: etree._Element) -> bool:
    def without_d(el: etree._Element) -> Dict[str, str]:
        return {k: v for k, v in el.attrib.items() if k != "d"}

    return without_d(a) == without_d(b)


def merge_paths(root: etree._Element) -> None:
    """Join sibling paths with identical attributes when their shapes cannot overlap."""
    for parent in list(elements(root)):
        previous = None
        previous_bbox = None
        for child in list(parent):
            if not isinstance(child.tag, str) or not _mergeable(child):
                previous = None
                continue
            d = child.get("d")
            try:
                commands = parse_path_data(d)
            except ValueError:
                previous = None
                continue
            bbox = path_bbox(commands)
            if (
                previous is not None
                and previous_bbox is not None
                and bbox is not None
                and not (previous.tail and previous.tail.strip())
                and _same_attrs(previous, child)
                and d.startswith("M")
                and not bboxes_overlap(previous_bbox, bbox)
            ):
                previous.set("d", previous.get("d") + d)
                previous_bbox = (
                    min(previous_bbox[0], bbox[0]),
                    min(previous_bbox[1], bbox[1]),
                    max(previous_bbox[2], bbox[2]),
                    max(previous_bbox[3], bbox[3]),
                )
                remove_node(child)
                continue
            previous = child
            previous_bbox = bbox


def remove_unused_ns(root: etree._Element) -> None:
    etree.cleanup_namespaces(root)


def sort_defs_children(root: etree._Element) -> None:
    """Order definitions by how often their element type occurs, most frequent first."""
    for defs in [el for el in elements(root) if local_name(el) == "defs"]:
        children = list(defs)
        if not children or not all(isinstance(c.tag, str) for c in children):
            continue
        frequency = Counter(local_name(c) for c in children)
        ordered = sorted(children, key=lambda c: (-frequency[local_name(c)], local_name(c)))
        if ordered != children:
            for child in children:
                defs.remove(child)
            defs.extend(ordered)


def remove_title(root: etree._Element) -> None:
    for el in list(elements(root)):
        if local_name(el) == "title":
            remove_node(el)


def remove_desc(root: etree._Element) -> None:
    for el in list(elements(root)):
        if local_name(el) == "desc":
            remove_node(el)


PLUGINS: List[Tuple[str, Plugin]] = [
    ("removeDoctype", remove_doctype),
    ("removeXMLProcInst", remove_xml_proc_inst),
    ("removeComments", remove_comments),
    ("removeMetadata", remove_metadata),
    ("removeEditorsNSData", remove_editors_ns_data),
    ("cleanupAttrs", cleanup_attrs),
    ("removeUselessDefs", remove_useless_defs),
    ("removeUnknownsAndDefaults", remove_unknowns_and_defaults),
    ("removeNonInheritableGroupAttrs", remove_non_inheritable_group_attrs),
    ("removeUselessStrokeAndFill", remove_useless_stroke_and_fill),
    ("cleanupEnableBackground", cleanup_enable_background),
    ("removeHiddenElems", remove_hidden_elems),
    ("removeEmptyText", remove_empty_text),
    ("convertShapeToPath", convert_shape_to_path),
    ("convertEllipseToCircle", convert_ellipse_to_circle),
    ("moveElemsAttrsToGroup", move_elems_attrs_to_group),
    ("moveGroupAttrsToElems", move_group_attrs_to_elems),
    ("collapseGroups", collapse_groups),
    ("convertPathData", convert_path_data),
    ("convertTransform", convert_transform),
    ("removeEmptyAttrs", remove_empty_attrs),
    ("removeEmptyContainers", remove_empty_containers),
    ("mergePaths", merge_paths),
    ("removeUnusedNS", remove_unused_ns),
    ("sortDefsChildren", sort_defs_children),
    ("removeTitle", remove_title),
    ("removeDesc", remove_desc),
]


def run_plugins(root: etree._Element) -> None:
    for _, plugin in PLUGINS:
        plugin(root)
