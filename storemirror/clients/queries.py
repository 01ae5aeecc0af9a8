# storemirror/clients/queries.py
# GraphQL documents for both stores. REST paths live next to their callers in stores.py.

# =========================================================
# Source store: catalog feed
# =========================================================

_PRODUCT_FIELDS = """
  id
  title
  handle
  status
  descriptionHtml
  metafields(first: 25, namespace: $ns) {
    edges { node { namespace key value type } }
  }
  images(first: 20) {
    edges { node { url } }
  }
  variants(first: 100) {
    edges {
      node {
        id
        sku
        price
        title
        inventoryQuantity
        metafields(first: 25, namespace: $ns) {
          edges { node { namespace key value type } }
        }
      }
    }
  }
"""

FEED_PRODUCTS = """
query FeedProducts($first: Int!, $after: String, $ns: String!) {
  products(first: $first, after: $after, query: "status:active") {
    edges {
      cursor
      node {%s}
    }
    pageInfo { hasNextPage endCursor }
  }
}
""" % _PRODUCT_FIELDS

PRODUCT_BY_ID = """
query FeedProduct($id: ID!, $ns: String!) {
  product(id: $id) {%s}
}
""" % _PRODUCT_FIELDS

# =========================================================
# SKU / inventory-item resolution
# =========================================================

SOURCE_VARIANTS_BY_SKU = """
query SourceVariantsBySku($q: String!, $ns: String!) {
  productVariants(first: 5, query: $q) {
    edges {
      node {
        id
        sku
        price
        inventoryQuantity
        product { title }
        metafields(first: 25, namespace: $ns) {
          edges { node { namespace key value type } }
        }
      }
    }
  }
}
"""

SOURCE_VARIANT_BY_INVENTORY_ITEM = """
query VariantByInventoryItem($id: ID!, $ns: String!) {
  inventoryItem(id: $id) {
    id
    sku
    variant {
      id
      sku
      price
      inventoryQuantity
      product { title }
      metafields(first: 25, namespace: $ns) {
        edges { node { namespace key value type } }
      }
    }
  }
}
"""

DESTINATION_VARIANTS_BY_SKU = """
query DestinationVariantsBySku($q: String!) {
  productVariants(first: 5, query: $q) {
    edges {
      node {
        id
        sku
        price
        title
        inventoryItem { id }
        product { id }
      }
    }
  }
}
"""

# =========================================================
# Destination store: inventory tracking
# =========================================================

INVENTORY_ITEM_TRACK = """
mutation TrackInventoryItem($id: ID!, $input: InventoryItemInput!) {
  inventoryItemUpdate(id: $id, input: $input) {
    inventoryItem { id tracked }
    userErrors { field message }
  }
}
"""

# =========================================================
# Source store: mirror draft orders
# =========================================================

_DRAFT_FIELDS = """
  id
  name
  status
  order { id name }
"""

DRAFT_ORDERS_BY_QUERY = """
query MirrorDraftOrders($q: String!) {
  draftOrders(first: 5, query: $q) {
    edges { node {%s} }
  }
}
""" % _DRAFT_FIELDS

DRAFT_ORDER_BY_ID = """
query MirrorDraftOrder($id: ID!) {
  draftOrder(id: $id) {%s}
}
""" % _DRAFT_FIELDS

DRAFT_ORDER_CREATE = """
mutation CreateMirrorDraftOrder($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder {%s}
    userErrors { field message }
  }
}
""" % _DRAFT_FIELDS

DRAFT_ORDER_COMPLETE = """
mutation CompleteMirrorDraftOrder($id: ID!, $paymentPending: Boolean) {
  draftOrderComplete(id: $id, paymentPending: $paymentPending) {
    draftOrder {%s}
    userErrors { field message }
  }
}
""" % _DRAFT_FIELDS

DRAFT_ORDER_DELETE = """
mutation DeleteMirrorDraftOrder($input: DraftOrderDeleteInput!) {
  draftOrderDelete(input: $input) {
    deletedId
    userErrors { field message }
  }
}
"""

# =========================================================
# Metafields: annotations, mirrored values, definitions
# =========================================================

METAFIELDS_SET = """
mutation SetMetafields($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { key value }
    userErrors { field message }
  }
}
"""

METAFIELD_DEFINITION_CREATE = """
mutation metafieldDefinitionCreate($definition: MetafieldDefinitionInput!) {
  metafieldDefinitionCreate(definition: $definition) {
    createdDefinition {
      id
      name
      namespace
      key
      type { name category }
      ownerType
    }
    userErrors { field message }
  }
}
"""

METAFIELD_DEFINITIONS = """
query MetafieldDefinitions($ownerType: MetafieldOwnerType!, $ns: String!) {
  metafieldDefinitions(first: 250, ownerType: $ownerType, namespace: $ns) {
    edges {
      node {
        name
        namespace
        key
        description
        type { name }
        validations { name value }
      }
    }
  }
}
"""

# =========================================================
# Destination store: mirrored metafield values
# =========================================================

DESTINATION_PRODUCT_METAFIELDS = """
query DestinationProductMetafields($id: ID!, $ns: String!) {
  product(id: $id) {
    id
    metafields(first: 25, namespace: $ns) {
      edges { node { namespace key value type } }
    }
    variants(first: 100) {
      edges {
        node {
          id
          metafields(first: 25, namespace: $ns) {
            edges { node { namespace key value type } }
          }
        }
      }
    }
  }
}
"""
