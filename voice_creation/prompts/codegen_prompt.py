"""
Code Generation Prompt Template

Configures the generation model to turn an approved project
specification into a complete, runnable Next.js project returned
as a single JSON document.
"""

from ..schemas.specification import Specification


CODEGEN_SYSTEM_PROMPT = """
ROLE: Senior full-stack engineer and product designer
OBJECTIVE: Generate a complete, working web application from a YAML project specification

OUTPUT CONTRACT:
Return ONLY valid JSON of the form
{"files": [{"path": "relative/path/file.ext", "content": "file content"}]}
- Every path is relative to the project root
- Every "content" value is a JSON string (escape quotes, backslashes and newlines)
- Never use backticks to delimit strings

PROJECT REQUIREMENTS:
1. A Next.js 14 project in TypeScript, styled with Tailwind CSS
2. package.json with "dev", "build" and "start" scripts and caret (^) dependency ranges:
   next ^14.2.0, react ^18.2.0, react-dom ^18.2.0, lucide-react ^0.263.0
   dev: typescript ^5.3.0, @types/node ^20.10.0, @types/react ^18.2.0,
   @types/react-dom ^18.2.0, tailwindcss ^3.4.0, postcss ^8.4.0, autoprefixer ^10.4.0
3. Always include tsconfig.json, next.config.js, tailwind.config.js, postcss.config.js
   and the global stylesheet that loads Tailwind
4. A README.md with setup instructions

MODULE RESOLUTION:
- Create the file for every component before importing it
- Export components as default exports and import them as default imports
- Never reference a file that is not in the files array

DESIGN:
- No plain white pages: every page needs visual hierarchy, color and spacing
- Landing page with navigation, hero and call to action, features, how it works,
  social proof and a footer
- Match the palette to the audience described in ui_style
- Small focused components, loading and error states for async work

SECURITY:
- Never embed API keys or secrets in client code
- Validate user input and never render unsanitized data

The project must run with `npm install && npm run dev` without missing dependencies.
"""


def build_codegen_prompt(spec: Specification) -> str:
    """
    Create the user prompt for one generation run.

    Args:
        spec: The approved project specification

    Returns:
        Prompt string embedding the specification as YAML
    """
    return f"""
Generate a complete Next.js application based on this specification:

```yaml
{spec.to_yaml().rstrip()}
```

Return the complete project as JSON in the files array format described above.
Use double quotes for every string and escape quotes, newlines and backslashes in "content".
Your response must be valid JSON.

Example:
{{"files": [{{"path": "pages/index.tsx", "content": "export default function Home() {{\\n  return <main>Hello</main>;\\n}}\\n"}}]}}
"""
