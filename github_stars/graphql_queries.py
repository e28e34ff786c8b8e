"""GraphQL queries used to read the viewer's starred repositories."""

TOTAL_STARRED_COUNT_QUERY = """
query {
  viewer {
    starredRepositories(first: 1) {
      totalCount
    }
  }
}
"""

STARRED_REPOSITORIES_QUERY = """
query ($after: String, $pageSize: Int!) {
  rateLimit {
    cost
    remaining
    resetAt
  }
  viewer {
    starredRepositories(first: $pageSize, after: $after, orderBy: {field: STARRED_AT, direction: DESC}) {
      totalCount
      pageInfo {
        endCursor
        hasNextPage
      }
      edges {
        starredAt
        node {
          ...StarredRepositoryFields
        }
      }
    }
  }
}

fragment StarredRepositoryFields on Repository {
  id
  name
  owner {
    __typename
    login
    url
  }
  description
  url
  homepageUrl
  isArchived
  isFork
  isPrivate
  isTemplate
  latestRelease {
    name
    publishedAt
    url
  }
  licenseInfo {
    name
    nickname
    spdxId
    url
  }
  stargazerCount
  forkCount
  createdAt
  pushedAt
  updatedAt
  languages(first: 10, orderBy: {field: SIZE, direction: DESC}) {
    edges {
      node {
        name
      }
    }
  }
  repositoryTopics(first: 100) {
    nodes {
      topic {
        name
        stargazerCount
      }
    }
  }
  fundingLinks {
    url
    platform
  }
}
"""

__all__ = ["STARRED_REPOSITORIES_QUERY", "TOTAL_STARRED_COUNT_QUERY"]
