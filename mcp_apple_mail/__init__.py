"""Apple Mail MCP server: Mail automation through JavaScript for Automation."""
