"""GraphQL documents used by the source data fetcher."""

COMMENT_FIELDS = """
    id
    createdAt
    body
    url
    author {
      login
      ... on User {
        name
      }
    }
"""

ISSUE_FIELDS = f"""
    id
    title
    url
    body
    createdAt
    updatedAt
    lastEditedAt
    state
    labels(first: 20) {{
      nodes {{
        name
        color
      }}
    }}
    assignees(first: 10) {{
      nodes {{
        login
        name
        avatarUrl
      }}
    }}
    comments(first: $inlineComments) {{
      totalCount
      pageInfo {{
        hasNextPage
        endCursor
      }}
      nodes {{
        {COMMENT_FIELDS}
      }}
    }}
"""

PROJECT_ITEMS_QUERY = f"""
query($org: String!, $number: Int!, $cursor: String, $pageSize: Int!, $inlineComments: Int!) {{
  organization(login: $org) {{
    projectV2(number: $number) {{
      id
      title
      items(first: $pageSize, after: $cursor) {{
        pageInfo {{
          hasNextPage
          endCursor
        }}
        nodes {{
          id
          content {{
            ... on Issue {{
              {ISSUE_FIELDS}
            }}
          }}
          fieldValues(first: 20) {{
            nodes {{
              ... on ProjectV2ItemFieldSingleSelectValue {{
                name
                optionId
                field {{
                  ... on ProjectV2SingleSelectField {{
                    name
                  }}
                }}
              }}
            }}
          }}
        }}
      }}
    }}
  }}
}}
"""

OPEN_ISSUES_QUERY = f"""
query($owner: String!, $name: String!, $cursor: String, $pageSize: Int!, $inlineComments: Int!) {{
  repository(owner: $owner, name: $name) {{
    issues(first: $pageSize, after: $cursor, states: OPEN, orderBy: {{field: UPDATED_AT, direction: DESC}}) {{
      pageInfo {{
        hasNextPage
        endCursor
      }}
      nodes {{
        {ISSUE_FIELDS}
      }}
    }}
  }}
}}
"""

ISSUE_COMMENTS_QUERY = f"""
query($issueId: ID!, $cursor: String) {{
  node(id: $issueId) {{
    ... on Issue {{
      comments(first: 100, after: $cursor) {{
        pageInfo {{
          hasNextPage
          endCursor
        }}
        nodes {{
          {COMMENT_FIELDS}
        }}
      }}
    }}
  }}
}}
"""
