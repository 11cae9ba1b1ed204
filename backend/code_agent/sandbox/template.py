"""Starter Next.js app written into sandboxes created without a git source."""
import json


PACKAGE_JSON = {
    "name": "sandbox-app",
    "private": True,
    "scripts": {"dev": "next dev", "build": "next build", "start": "next start"},
    "dependencies": {
        "next": "^15.0.0",
        "react": "^19.0.0",
        "react-dom": "^19.0.0",
    },
    "devDependencies": {
        "@tailwindcss/postcss": "^4.0.0",
        "@types/node": "^22.0.0",
        "@types/react": "^19.0.0",
        "tailwindcss": "^4.0.0",
        "typescript": "^5.0.0",
    },
}

TSCONFIG = {
    "compilerOptions": {
        "target": "ES2017",
        "lib": ["dom", "dom.iterable", "esnext"],
        "allowJs": True,
        "skipLibCheck": True,
        "strict": True,
        "noEmit": True,
        "esModuleInterop": True,
        "module": "esnext",
        "moduleResolution": "bundler",
        "resolveJsonModule": True,
        "isolatedModules": True,
        "jsx": "preserve",
        "incremental": True,
        "plugins": [{"name": "next"}],
        "paths": {"@/*": ["./*"]},
    },
    "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
    "exclude": ["node_modules"],
}

LAYOUT_TSX = """import "./globals.css";

export default function RootLayout({ children }: { children: React.ReactNode }) {
  return (
    <html lang="en">
      <body>{children}</body>
    </html>
  );
}
"""

PAGE_TSX = """export default function Page() {
  return <main className="p-8">Ready.</main>;
}
"""


TEMPLATE_FILES: dict[str, str] = {
    "package.json": json.dumps(PACKAGE_JSON, indent=2) + "\n",
    "tsconfig.json": json.dumps(TSCONFIG, indent=2) + "\n",
    "next.config.mjs": "export default {};\n",
    "postcss.config.mjs": 'export default { plugins: { "@tailwindcss/postcss": {} } };\n',
    "app/globals.css": '@import "tailwindcss";\n',
    "app/layout.tsx": LAYOUT_TSX,
    "app/page.tsx": PAGE_TSX,
}
