"""Candidate field names for GraphQL schema enumeration."""

from __future__ import annotations

from typing import Final

COMMON_QUERY_FIELDS: Final[tuple[str, ...]] = (
    # User related
    "me", "user", "users", "currentUser", "viewer", "profile", "account",
    "getUserById", "getUserByEmail", "getUserByUsername",
    # Content
    "post", "posts", "article", "articles", "blog", "blogs",
    "page", "pages", "content", "contents",
    # Commerce
    "product", "products", "item", "items", "cart", "order", "orders",
    "catalog", "categories", "category",
    # Data
    "data", "list", "search", "find", "get", "fetch",
    "query", "all", "filter", "results",
    # System
    "info", "status", "health", "version", "config", "settings",
    "node", "nodes", "edge", "edges",
    # Social
    "comment", "comments", "like", "likes", "follow", "followers",
    "feed", "timeline", "notifications",
)

COMMON_MUTATIONS: Final[tuple[str, ...]] = (
    # User actions
    "login", "logout", "signup", "register", "authenticate",
    "createUser", "updateUser", "deleteUser",
    "updateProfile", "changePassword", "resetPassword",
    # CRUD
    "create", "update", "delete", "remove", "add",
    "createPost", "updatePost", "deletePost",
    "createProduct", "updateProduct", "deleteProduct",
    # Actions
    "submit", "send", "upload", "download",
    "like", "unlike", "follow", "unfollow",
    "comment", "reply", "share",
)

COMMON_SCALAR_FIELDS: Final[tuple[str, ...]] = (
    "id", "name", "title", "description", "email", "username",
    "createdAt", "updatedAt", "date", "timestamp",
    "status", "type", "value", "count", "total", "amount",
    "url", "slug", "key", "code", "message", "text",
    "isActive", "isEnabled", "isPublished", "isDeleted",
    "firstName", "lastName", "fullName", "displayName",
    "address", "city", "state", "country", "zipCode",
    "phone", "mobile", "age", "price", "quantity",
)

# Short list used by the introspection test's brute-force step
INTROSPECTION_PROBE_FIELDS: Final[tuple[str, ...]] = (
    "users", "user", "me", "viewer", "currentUser",
    "posts", "post", "articles", "products", "items",
    "search", "query", "data", "info", "status",
)

FULL_INTROSPECTION_QUERY: Final[str] = """
query IntrospectionQuery {
    __schema {
        queryType { name }
        mutationType { name }
        subscriptionType { name }
        types {
            name
            kind
            description
            fields {
                name
                description
                type {
                    name
                    kind
                }
            }
        }
    }
}
"""

TYPE_NAMES_QUERY: Final[str] = "{ __schema { types { name } } }"

QUERY_TYPE_QUERY: Final[str] = '{ __type(name: "Query") { name fields { name } } }'

SUGGESTION_PROBE_QUERY: Final[str] = "{ invalidFieldTest123 }"

TYPENAME_QUERY: Final[str] = "{ __typename }"
